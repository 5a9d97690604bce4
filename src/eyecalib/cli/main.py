from __future__ import annotations

import argparse
import logging
import math
import warnings
from pathlib import Path

import numpy as np

from eyecalib.api.calibration import EmptyDatasetWarning, EyesCalibration
from eyecalib.api.io import load_calibration_result, load_dataset, save_calibration_result, save_dataset
from eyecalib.core.geometry import get_extrinsics
from eyecalib.params import SwarmParameters, load_swarm_parameters
from eyecalib.sim.synthetic import generate_synthetic_dataset


def setup_logging(verbose: bool = False) -> None:
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("[%(asctime)s][%(levelname)s] %(message)s"))
        root.addHandler(handler)


def _params_from_args(args: argparse.Namespace) -> SwarmParameters:
    params = load_swarm_parameters(args.config) if args.config else SwarmParameters()
    overrides: dict[str, object] = {}
    if args.num_particles is not None:
        overrides["num_particles"] = args.num_particles
    if args.max_iter is not None:
        overrides["max_iter"] = args.max_iter if args.max_iter > 0 else None
    if args.max_time is not None:
        overrides["max_time"] = args.max_time if args.max_time > 0 else math.inf
    if args.cost_threshold is not None:
        overrides["cost_threshold"] = args.cost_threshold
    return params.with_overrides(**overrides) if overrides else params


def _print_matrix(name: str, H: np.ndarray) -> None:
    print(f"{name}:")
    print(np.array2string(np.asarray(H), precision=6, suppress_small=True))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="eyecalib")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    gen = sub.add_parser("generate-synthetic-dataset", help="Fabricate observations from a known eye pose.")
    gen.add_argument("--out", type=Path, required=True, help="Output NPZ.")
    gen.add_argument(
        "--pose",
        type=float,
        nargs=6,
        default=[0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
        metavar=("TX", "TY", "TZ", "ROLL", "PITCH", "YAW"),
        help="Ground-truth pose (m, rad).",
    )
    gen.add_argument("--n-observations", type=int, default=20)
    gen.add_argument("--noise-rot-deg", type=float, default=0.0, help="Rotation noise on the relative pose (deg).")
    gen.add_argument("--noise-t-m", type=float, default=0.0, help="Translation noise on the relative pose (m).")
    gen.add_argument("--seed", type=int, default=0)

    cal = sub.add_parser("calibrate", help="Solve the eye extrinsics with a particle swarm.")
    cal.add_argument("dataset", type=Path, help="Observations NPZ.")
    cal.add_argument("--config", type=Path, default=None, help="Swarm parameters JSON.")
    cal.add_argument("--out", type=Path, default=None, help="Write the result JSON here.")
    cal.add_argument("--seed", type=int, default=None)
    cal.add_argument("--num-particles", type=int, default=None)
    cal.add_argument("--max-iter", type=int, default=None, help="Iteration cap (0=unbounded).")
    cal.add_argument("--max-time", type=float, default=None, help="Time cap in seconds (0=unbounded).")
    cal.add_argument("--cost-threshold", type=float, default=None)

    ext = sub.add_parser("extrinsics", help="Print the eye extrinsics for a pose or a saved result.")
    src = ext.add_mutually_exclusive_group(required=True)
    src.add_argument("--pose", type=float, nargs=6, metavar=("TX", "TY", "TZ", "ROLL", "PITCH", "YAW"))
    src.add_argument("--result", type=Path)

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if args.cmd == "generate-synthetic-dataset":
        dataset = generate_synthetic_dataset(
            np.asarray(args.pose, dtype=np.float64),
            n_observations=args.n_observations,
            noise_rot_deg=args.noise_rot_deg,
            noise_t_m=args.noise_t_m,
            seed=args.seed,
        )
        save_dataset(args.out, dataset)
        print(f"Wrote {args.out}")
        return 0

    if args.cmd == "calibrate":
        calib = EyesCalibration(load_dataset(args.dataset))
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", EmptyDatasetWarning)
            result = calib.run_calibration(_params_from_args(args), seed=args.seed)
        for w in caught:
            logging.warning(str(w.message))

        print(f"pose: {np.array2string(result.pose, precision=6)}")
        print(f"cost: {result.cost:.6g} ({result.iterations} iterations, {result.elapsed_s:.3f} s)")
        if args.out:
            save_calibration_result(args.out, result)
            print(f"Wrote {args.out}")
        return 2 if result.degenerate else 0

    if args.cmd == "extrinsics":
        pose = load_calibration_result(args.result).pose if args.result else np.asarray(args.pose, dtype=np.float64)
        H_left, H_right = get_extrinsics(pose)
        _print_matrix("left", H_left)
        _print_matrix("right", H_right)
        return 0

    raise AssertionError(f"Unhandled cmd: {args.cmd}")
