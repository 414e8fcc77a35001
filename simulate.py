#!/usr/bin/env python
"""
Penguin AI Simulation Script
============================

Headless entry point that runs a population of penguin agents against a
synthetic world and saves their policy checkpoints.

Usage:
    # Quick debug run
    python simulate.py --mode debug

    # Default run with a shared policy
    python simulate.py --shared-model --name shared_run

    # Custom config
    python simulate.py --config my_config.json

Author: Penguin AI Team
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))


logger = logging.getLogger("simulate")


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Run the penguin decision-and-learning core headless",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python simulate.py --mode debug               # Quick test (200 ticks)
  python simulate.py --mode default             # Default run (2000 ticks)
  python simulate.py --config my_config.json    # Custom configuration
        """
    )

    parser.add_argument(
        "--mode",
        type=str,
        choices=["debug", "default"],
        default="default",
        help="Configuration preset (default: default)"
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to custom config JSON file"
    )

    parser.add_argument(
        "--name",
        type=str,
        default=None,
        help="Experiment name (default: auto-generated)"
    )

    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Output directory (default: from config)"
    )

    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed (default: from config)"
    )

    parser.add_argument(
        "--device",
        type=str,
        choices=["cpu", "cuda"],
        default=None,
        help="Device to use (default: from config)"
    )

    parser.add_argument("--ticks", type=int, default=None, help="Total simulation ticks")
    parser.add_argument("--agents", type=int, default=None, help="Number of penguins")
    parser.add_argument("--shared-model", action="store_true", help="Share one policy across all penguins")
    parser.add_argument("--checkpoint-dir", type=str, default=None, help="Checkpoint directory")

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)"
    )

    return parser.parse_args(argv)


def get_config(args):
    """Get simulation configuration from args."""
    from training.config import (
        SimulationConfig,
        get_debug_config,
        get_default_config
    )

    if args.config:
        config = SimulationConfig.load(args.config)
        logger.info("Loaded config from: %s", args.config)
    else:
        config_map = {
            "debug": get_debug_config,
            "default": get_default_config
        }
        config = config_map[args.mode]()
        logger.info("Using preset: %s", args.mode)

    if args.name:
        config.experiment_name = args.name
    elif not args.config:
        import datetime
        timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        config.experiment_name = f"{args.mode}_{timestamp}"

    if args.output:
        config.output_dir = args.output

    if args.seed is not None:
        config.seed = args.seed

    if args.device:
        config.device = args.device

    if args.ticks is not None:
        config.total_ticks = args.ticks

    if args.agents is not None:
        config.num_agents = args.agents

    if args.shared_model:
        config.shared_model = True

    if args.checkpoint_dir:
        config.checkpoint_dir = args.checkpoint_dir

    return config


def main(argv=None):
    """Main simulation entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    config = get_config(args)

    from training.trainer import Trainer

    trainer = Trainer(config)

    try:
        results = trainer.train()

        print("\nFinal Results:")
        print(f"  Total ticks: {results['total_ticks']:,}")
        print(f"  Mean reward: {results['reward_mean']:.2f}")
        print(f"  Mean efficiency: {results['efficiency_mean']:.3f}")
        print(f"  Training updates: {results['total_updates']:,}")
        print(f"  Simulation time: {results['time_elapsed']:.1f} seconds")

        return 0

    except KeyboardInterrupt:
        logger.warning("Simulation interrupted by user, saving checkpoints")
        trainer.save_checkpoint()
        trainer.metrics.save()
        return 1

    except Exception:
        logger.exception("Simulation failed")
        return 1

    finally:
        trainer.close()


if __name__ == "__main__":
    sys.exit(main())
