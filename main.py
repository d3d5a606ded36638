"""
Sprout - grow a plant from the command line

Plants a seed, runs the event timeline for a span of simulated time and
prints a summary. Optionally renders the result to an image.

    python main.py --duration 120000 --template custom --output plant.png
"""

import argparse
import logging
from typing import Sequence

import numpy as np

from sprout.growth import GrowthSession
from sprout.render import save_plant
from sprout.settings import GrowthSettings, SettingsStore, load_settings


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Grow a branching plant over simulated time.")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML settings file (defaults are used when omitted)",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=60_000.0,
        help="Simulated milliseconds to grow (default: 60000)",
    )
    parser.add_argument(
        "--template",
        choices=["tree", "custom"],
        default=None,
        help="Override the plant template from the settings",
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument(
        "--frame-interval",
        type=float,
        default=16.0,
        help="Physics step in ms; 0 disables physics (default: 16)",
    )
    parser.add_argument("--output", default=None, help="Save a rendering to this image path")
    parser.add_argument("--verbose", action="store_true", help="Log every spawn and transition")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )

    settings = load_settings(args.config) if args.config else GrowthSettings()
    store = SettingsStore(settings)
    if args.template is not None:
        store.update("simulation", "plant_template", args.template)
    store.add_observer(lambda change: logging.info("Settings updated: %s", change))

    session = GrowthSession(
        settings=store,
        rng=np.random.default_rng(args.seed),
        frame_interval=args.frame_interval or None,
    )

    print("\n" + "=" * 60)
    print("  SPROUT: Branching Plant Growth")
    print("=" * 60)

    session.begin_growth()
    store.set_pre_growth_locked(True)
    session.advance(args.duration)
    session.print_summary()

    if args.output:
        save_plant(session.snapshot(), args.output, skin=store.display.render_skin)


if __name__ == "__main__":
    main()
