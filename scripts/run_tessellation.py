#!/usr/bin/env python3
"""
Bezier Surface Tessellation

This script builds a Bezier height surface from a configuration file,
tessellates it into an interleaved vertex buffer, and writes the buffer
together with a quality report.
"""

from __future__ import annotations

import argparse
import datetime
import json
import logging
import os
import sys
from pathlib import Path
from typing import Dict, Optional

import numpy as np
import yaml

# Add parent directory to path
sys.path.append(str(Path(__file__).resolve().parent.parent))

from bezmesh import evaluate, mesh, visualise
from bezmesh.surface import BezierSurface


logger = logging.getLogger("tessellation")


def load_config(config_path: Optional[str] = None) -> Dict:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary
    """
    # Default config path
    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"

    with open(config_path, "r") as f:
        config = yaml.safe_load(f)

    return config


def build_surface(config: Dict) -> BezierSurface:
    """Create the surface described by the "surface" config section."""
    surface_config = config["surface"]
    surface = BezierSurface(degree=surface_config.get("degree", 3))
    surface.set_control_heights(surface_config["control_heights"])

    logger.info(
        f"Built degree-{surface.degree} surface from "
        f"{len(surface_config['control_heights'])} control heights"
    )
    return surface


def save_results(
    output_dir: str,
    buffer: np.ndarray,
    metrics: Optional[Dict] = None
) -> None:
    """Save tessellation results to output directory.

    Args:
        output_dir: Path to output directory
        buffer: Interleaved vertex buffer
        metrics: Tessellation metrics (optional)
    """
    logger.info(f"Saving results to {output_dir}")

    os.makedirs(output_dir, exist_ok=True)

    vertices_file = os.path.join(output_dir, "vertices.npy")
    with open(vertices_file, "wb") as f:
        np.save(f, buffer)

    if metrics is not None:
        metrics_file = os.path.join(output_dir, "report.json")
        with open(metrics_file, "w") as f:
            json.dump(metrics, f, indent=2)

    logger.info("Results saved successfully")


def run_tessellation(
    output_dir: Optional[str] = None,
    accuracy: Optional[int] = None,
    visualise_results: bool = False,
    config_path: Optional[str] = None,
    progress: bool = False
) -> Dict:
    """Run surface construction, tessellation and evaluation.

    Args:
        output_dir: Output directory (overrides config)
        accuracy: Subdivisions per axis (overrides config)
        visualise_results: Save a rendered image of the surface
        config_path: Path to configuration file
        progress: Show a progress bar while tessellating

    Returns:
        Dictionary of tessellation metrics
    """
    config = load_config(config_path)

    if output_dir is not None:
        config["io"]["output_dir"] = output_dir
    if accuracy is not None:
        config["tessellation"]["accuracy"] = accuracy

    output_dir = config["io"]["output_dir"]
    accuracy = config["tessellation"]["accuracy"]
    dtype = np.dtype(config["tessellation"].get("dtype", "float32"))

    metrics = evaluate.TessellationMetrics()
    run_timer = evaluate.Timer("Tessellation run")
    run_timer.start()

    # === Stage 1: Surface ===
    with evaluate.Timer("Surface") as timer:
        surface = build_surface(config)
    metrics.update_stage_timing("surface", timer.elapsed)

    # === Stage 2: Tessellation ===
    with evaluate.Timer("Tessellation") as timer:
        buffer = np.empty(mesh.required_capacity(accuracy), dtype=dtype)
        mesh.tessellate(surface, accuracy, out=buffer, progress=progress)
    metrics.update_stage_timing("tessellation", timer.elapsed)

    # === Stage 3: Evaluation ===
    with evaluate.Timer("Evaluation") as timer:
        eval_config = config.get("evaluation", {})
        metrics.compute_surface_metrics(
            surface,
            n_samples=eval_config.get("tangent_samples", 9),
            step=eval_config.get("fd_step", 1e-5)
        )
        metrics.compute_mesh_metrics(buffer, accuracy)
    metrics.update_stage_timing("evaluation", timer.elapsed)

    # === Stage 4: Save Results ===
    metrics.update("runtime_s", run_timer.stop())
    metrics_dict = metrics.to_dict()
    metrics_dict["datetime"] = datetime.datetime.now().isoformat()
    save_results(output_dir, buffer, metrics_dict)

    if visualise_results:
        visualise.save_surface_visualization(
            surface, buffer, os.path.join(output_dir, "surface.png"),
            title=f"Bezier surface (accuracy={accuracy})"
        )

    logger.info("\n" + metrics.summary())

    return metrics_dict


def main():
    """Main function to parse arguments and run the tessellation."""
    parser = argparse.ArgumentParser(description="Bezier Surface Tessellation")
    parser.add_argument(
        "--config", "-c", dest="config_path", default=None,
        help="Path to configuration file"
    )
    parser.add_argument(
        "--output", "-o", dest="output_dir", default=None,
        help="Path to output directory"
    )
    parser.add_argument(
        "--accuracy", "-a", dest="accuracy", type=int, default=None,
        help="Subdivisions per parametric axis"
    )
    parser.add_argument(
        "--visualise", "-v", dest="visualise", action="store_true",
        help="Save a rendered image of the surface"
    )
    parser.add_argument(
        "--progress", dest="progress", action="store_true",
        help="Show tessellation progress"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
        handlers=[
            logging.StreamHandler(),
        ],
    )

    try:
        run_tessellation(
            args.output_dir,
            args.accuracy,
            args.visualise,
            args.config_path,
            args.progress
        )
    except Exception as e:
        logger.exception(f"Error running tessellation: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
