import argparse
import asyncio
import logging
import sys

import moodbridge.bridge
import moodbridge.config


logger = logging.getLogger("moodbridge")


def main () -> None:

	"""
	Main entry point: load the config and run the bridge until interrupted.
	"""

	parser = argparse.ArgumentParser(description="Live performance analysis bridge")
	parser.add_argument("--config", default="config/config.yaml", help="Path to the YAML config (default: config/config.yaml)")
	parser.add_argument("--no-midi", action="store_true", help="Do not open a MIDI input port")
	parser.add_argument("--verbose", action="store_true", help="Log section and style transitions")
	args = parser.parse_args()

	logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

	try:
		config = moodbridge.config.load_config(args.config)
	except moodbridge.config.ConfigError as e:
		logger.error(f"{e}")
		sys.exit(1)

	bridge = moodbridge.bridge.Bridge(config, config_path=args.config, enable_midi=not args.no_midi)

	try:
		asyncio.run(bridge.run_until_stopped())
	except KeyboardInterrupt:
		pass

	logger.info("Stopped.")


if __name__ == "__main__":
	main()
