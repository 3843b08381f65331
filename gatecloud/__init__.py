"""
Gate Cloud
==========

Physics-and-landing engine for the gate cloud mini-game: falling gate
tokens are pushed around by gravity, emitters/flippers and obstacles, and
land on qubits to change their displayed state.

The engine lives in ``gatecloud.gate_core``. Tunable parameters are in
game_config.yaml (deflector variant) and pinball_config.yaml.
"""
