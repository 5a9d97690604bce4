from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Literal

import numpy as np

from eyecalib.core.cost import CostFunction
from eyecalib.core.random_source import NumpyRandomSource, RandomSource
from eyecalib.params import SwarmParameters

logger = logging.getLogger(__name__)

SwarmState = Literal["uninitialized", "initialized", "running", "terminated"]

# Initial velocity half-widths: 1e-4 m for translation, 1 deg for rpy.
POSE_VELOCITY_RANGE = np.array([1e-4, 1e-4, 1e-4] + [math.radians(1.0)] * 3, dtype=np.float64)


@dataclass
class Particle:
    position: np.ndarray
    velocity: np.ndarray
    cost: float = math.inf

    @classmethod
    def zeros(cls, dim: int) -> "Particle":
        return cls(position=np.zeros((dim,), dtype=np.float64), velocity=np.zeros((dim,), dtype=np.float64))

    def copy(self) -> "Particle":
        return Particle(position=self.position.copy(), velocity=self.velocity.copy(), cost=float(self.cost))


class ParticleSwarm:
    """
    Particle swarm minimizer over a box-bounded parameter space.

    The caller drives the run:

        swarm.init()
        while swarm.step():
            pass
        best = swarm.finalize()

    Stopping early and calling `finalize` is allowed; it returns the best
    particle found so far.

    The global best is updated in place during a sweep, so a particle improving
    on it becomes the attraction target of the particles visited after it in
    the same iteration.
    """

    def __init__(
        self,
        cost: CostFunction,
        params: SwarmParameters | None = None,
        rng: RandomSource | None = None,
        *,
        velocity_range: np.ndarray | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.cost = cost
        self.params = params if params is not None else SwarmParameters()
        self.rng = rng if rng is not None else NumpyRandomSource()
        self.clock = clock

        dim = self.params.dim
        if velocity_range is None:
            if dim != POSE_VELOCITY_RANGE.size:
                raise ValueError(f"velocity_range is required for a {dim}-dimensional search space")
            velocity_range = POSE_VELOCITY_RANGE
        self.velocity_range = np.asarray(velocity_range, dtype=np.float64).reshape(-1)
        if self.velocity_range.size != dim:
            raise ValueError("velocity_range must match the bounds dimension")

        self._rand_min = np.zeros((dim,), dtype=np.float64)
        self._rand_max = np.ones((dim,), dtype=np.float64)

        self.x: list[Particle] = []
        self.p: list[Particle] = []
        self.g = Particle.zeros(dim)
        self.iteration = 0
        self.elapsed = 0.0
        self.scatter_count = 0
        self.state: SwarmState = "uninitialized"
        self._t0 = 0.0

    @property
    def dim(self) -> int:
        return self.params.dim

    @property
    def global_best(self) -> Particle:
        return self.g

    def evaluate(self, particle: Particle) -> float:
        particle.cost = float(self.cost(particle.position))
        return particle.cost

    def randomize(self) -> None:
        """Redraw every current position (uniform in bounds) and velocity."""
        lo = self.params.bounds[:, 0]
        hi = self.params.bounds[:, 1]
        for particle in self.x:
            particle.position = np.asarray(self.rng.vector(lo, hi), dtype=np.float64).copy()
            particle.velocity = np.asarray(self.rng.vector(-self.velocity_range, self.velocity_range), dtype=np.float64).copy()

    def clamp(self, position: np.ndarray) -> np.ndarray:
        return np.minimum(np.maximum(position, self.params.bounds[:, 0]), self.params.bounds[:, 1])

    def mean_distance_to_best(self) -> float:
        if not self.x:
            return 0.0
        return float(np.mean([np.linalg.norm(self.g.position - particle.position) for particle in self.x]))

    def init(self) -> None:
        self.x = [Particle.zeros(self.dim) for _ in range(int(self.params.num_particles))]
        self.randomize()
        self.p = [particle.copy() for particle in self.x]

        self.g = Particle.zeros(self.dim)
        for particle in self.p:
            if self.evaluate(particle) < self.g.cost:
                self.g = particle.copy()

        self.iteration = 0
        self.scatter_count = 0
        self._t0 = self.clock()
        self.elapsed = 0.0
        self.state = "initialized"

    def step(self) -> bool:
        """
        One swarm update. Returns False once an iteration, time or cost
        criterion is met; the caller should then stop stepping.
        """
        if self.state == "uninitialized":
            raise RuntimeError("init() must be called before step()")
        self.state = "running"
        prm = self.params

        self.iteration += 1
        for i, xi in enumerate(self.x):
            r1 = np.asarray(self.rng.vector(self._rand_min, self._rand_max), dtype=np.float64)
            r2 = np.asarray(self.rng.vector(self._rand_min, self._rand_max), dtype=np.float64)

            xi.velocity = (
                prm.omega * xi.velocity
                + prm.phi_p * r1 * (self.p[i].position - xi.position)
                + prm.phi_g * r2 * (self.g.position - xi.position)
            )
            xi.position = self.clamp(xi.position + xi.velocity)

            f = self.evaluate(xi)
            if f < self.p[i].cost:
                self.p[i] = xi.copy()
                if f < self.g.cost:
                    self.g = self.p[i].copy()

        scattered = False
        if self.iteration % int(prm.stagnation_period) == 0:
            if self.mean_distance_to_best() < prm.stagnation_threshold:
                self.randomize()
                self.scatter_count += 1
                scattered = True

        self.elapsed = self.clock() - self._t0
        keep_going = (
            (prm.max_iter is None or self.iteration < int(prm.max_iter))
            and self.g.cost > prm.cost_threshold
            and self.elapsed < prm.max_time
        )

        if self.iteration % int(prm.report_period) == 0 or scattered:
            self._report(scattered)

        if not keep_going:
            self.state = "terminated"
        return keep_going

    def finalize(self) -> Particle:
        if self.state == "uninitialized":
            raise RuntimeError("init() must be called before finalize()")
        self._report()
        return self.g.copy()

    def _report(self, scattered: bool = False) -> None:
        suffix = "; particles scattered away" if scattered else ""
        logger.info(
            "iter #%d t=%.3f [s]: cost=%.6g (%.6g)%s",
            self.iteration,
            self.elapsed,
            self.g.cost,
            self.params.cost_threshold,
            suffix,
        )
