"""An example of how to serve the audio zones of a config file.

This is:
1. Load the AudioZone platform entry of a Homebridge style config.json.
2. Register the plugin types and create the platform through them.
3. Add it to a ZoneDriver, which will advertise it on the local network,
    setup a server to answer host bridge queries, etc.
"""
import logging
import signal
import sys

from audiozone.config import load_config
from audiozone.const import PLATFORM_TYPE
from audiozone.driver import ZoneDriver
from audiozone.plugin import HostRegistry, register

logging.basicConfig(level=logging.INFO)

config_path = sys.argv[1] if len(sys.argv) > 1 else "config.json"
config = load_config(config_path)

host = HostRegistry()
register(host)

driver = ZoneDriver(config=config)
driver.add_platform(host.create_platform(PLATFORM_TYPE, driver, config))

# We want SIGTERM (kill) to be handled by the driver itself,
# so that it can gracefully stop the server and advertising.
signal.signal(signal.SIGTERM, driver.signal_handler)

# Start it!
driver.start()
