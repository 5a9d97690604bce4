"""
Derivative-free global minimizers over box-bounded parameter spaces.

The swarm only needs a callable `cost(x) -> float`; it knows nothing about
cameras or calibration data.
"""
