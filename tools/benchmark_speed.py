"""
Performance Benchmark
=====================

Measures headless frame and environment step throughput for both variants.

Usage:
    python -m tools.benchmark_speed [--steps S] [--variants deflector pinball]
"""

from __future__ import annotations

import argparse
import sys
import time
import numpy as np

from gatecloud.gate_core.config_loader import VARIANTS, load_config
from gatecloud.gate_core.game import GateCloudGame
from gatecloud.gate_core.env_gym import GateCloudEnv


def random_action(env: GateCloudEnv, rng: np.random.Generator) -> np.ndarray:
    return rng.uniform(-1, 1, size=env.action_space.shape).astype(np.float32)


def benchmark_env(
    variant: str,
    num_steps: int = 1000,
    seed: int = 42
) -> dict:
    """
    Benchmark Gymnasium environment performance.

    Args:
        variant: Bundled config variant.
        num_steps: Number of steps to run.
        seed: Random seed.

    Returns:
        Dict with timing results.
    """
    env = GateCloudEnv(variant=variant)
    rng = np.random.default_rng(seed)

    # Warmup
    env.reset(seed=seed)
    for _ in range(10):
        _, _, terminated, truncated, _ = env.step(random_action(env, rng))
        if terminated or truncated:
            env.reset()

    env.reset(seed=seed)
    start = time.perf_counter()

    episodes = 0
    for _ in range(num_steps):
        _, _, terminated, truncated, _ = env.step(random_action(env, rng))
        if terminated or truncated:
            episodes += 1
            env.reset()

    elapsed = time.perf_counter() - start
    env.close()

    return {
        "mode": f"env/{variant}",
        "num_steps": num_steps,
        "episodes": episodes,
        "elapsed_seconds": elapsed,
        "steps_per_second": num_steps / elapsed,
        "ms_per_step": (elapsed * 1000) / num_steps
    }


def benchmark_core_game(
    variant: str,
    num_frames: int = 4000,
    seed: int = 42
) -> dict:
    """
    Benchmark raw GateCloudGame ticks without Gym overhead.

    The game is restarted whenever a session ends so every frame simulates
    falling tokens.
    """
    config = load_config(variant=variant)
    game = GateCloudGame(config=config, seed=seed)
    frame_seconds = config.observation.frame_seconds

    game.start()
    now = 0.0
    start = time.perf_counter()

    sessions = 0
    for _ in range(num_frames):
        now += frame_seconds
        result = game.tick(now)
        if result.ended:
            sessions += 1
            game.reset()
            game.start()

    elapsed = time.perf_counter() - start

    return {
        "mode": f"core/{variant}",
        "num_steps": num_frames,
        "episodes": sessions,
        "elapsed_seconds": elapsed,
        "steps_per_second": num_frames / elapsed,
        "ms_per_step": (elapsed * 1000) / num_frames
    }


def run_all_benchmarks(variants=VARIANTS, steps: int = 500) -> list:
    """Run core and env benchmarks for each variant."""
    results = []

    print("=" * 60)
    print("GATE CLOUD PERFORMANCE BENCHMARK")
    print("=" * 60)
    print()

    for variant in variants:
        print(f"Benchmarking GateCloudGame ({variant})...")
        result = benchmark_core_game(variant, num_frames=steps * 4)
        results.append(result)
        print(f"  Frames/sec: {result['steps_per_second']:.1f}")
        print()

        print(f"Benchmarking GateCloudEnv ({variant})...")
        result = benchmark_env(variant, num_steps=steps)
        results.append(result)
        print(f"  Steps/sec: {result['steps_per_second']:.1f}")
        print()

    print("=" * 60)
    print("SUMMARY")
    print("=" * 60)
    print()
    print(f"{'Mode':<20} {'Episodes':>8} {'Steps/s':>12} {'ms/step':>10}")
    print("-" * 52)

    for r in results:
        print(
            f"{r['mode']:<20} {r['episodes']:>8} "
            f"{r['steps_per_second']:>12.1f} {r['ms_per_step']:>10.3f}"
        )

    return results


def main():
    parser = argparse.ArgumentParser(description="Benchmark gate cloud simulation performance")
    parser.add_argument("--steps", type=int, default=500, help="Env steps per benchmark")
    parser.add_argument("--variants", nargs="+", default=list(VARIANTS), choices=VARIANTS,
                        help="Config variants to benchmark")
    parser.add_argument("--quick", action="store_true", help="Quick benchmark (fewer steps)")

    args = parser.parse_args()

    steps = 100 if args.quick else args.steps

    run_all_benchmarks(variants=args.variants, steps=steps)

    return 0


if __name__ == "__main__":
    sys.exit(main())
