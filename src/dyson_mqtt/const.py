import os

__all__ = [
    "ANSI_MESSAGE",
    "ANSI_PUBLISH",
    "ANSI_RECEIVE",
    "ANSI_RESET",
    "ANSI_STRIKE",
    "ANSI_STRIKE_RESET",
    "ANSI_TIME",
    "DYSON_MQTT_CONNECTION_WATCHDOG",
    "DYSON_MQTT_DEBUG",
    "DYSON_MQTT_KEEPALIVE",
    "DYSON_MQTT_LOG_CORRELATION_ENABLED",
    "DYSON_MQTT_LOG_FORMAT",
    "DYSON_MQTT_LOG_HUMAN_OUTPUT",
    "DYSON_MQTT_LOG_JSON_FILE",
    "DYSON_MQTT_LOG_NAME",
    "DYSON_MQTT_LOG_PAYLOADS",
    "DYSON_MQTT_LOG_PAYLOADS_JSON",
    "DYSON_MQTT_MIN_DOWN_TIME",
    "DYSON_MQTT_RECONNECT_DELAY",
    "DYSON_MQTT_RECONNECT_INTERVAL",
    "DYSON_MQTT_WILDCARD_TOPIC",
    "MQTT_QOS_AT_LEAST_ONCE",
    "MQTT_SUBACK_FAILURE",
    "SHORT_SESSION_SECONDS",
    "TOPIC_PLACEHOLDER",
    "UNREACHABLE_MESSAGES",
    "WILDCARD_TOPIC",
    "YES_ANSWER",
    "env_flag",
    "env_float",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")
DYSON_MQTT_LOG_NAME: str = "dyson_mqtt"


def env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().casefold() in YES_ANSWER


def env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


DYSON_MQTT_DEBUG: bool = env_flag("DYSON_MQTT_DEBUG")

# Subscribe to everything ('#') on local brokers, or just the command topic on cloud brokers
DYSON_MQTT_WILDCARD_TOPIC: bool = env_flag("DYSON_MQTT_WILDCARD_TOPIC")

# Payload logging (debug features)
DYSON_MQTT_LOG_PAYLOADS: bool = env_flag("DYSON_MQTT_LOG_PAYLOADS")
DYSON_MQTT_LOG_PAYLOADS_JSON: bool = env_flag("DYSON_MQTT_LOG_PAYLOADS_JSON")

# Timings (seconds)
DYSON_MQTT_MIN_DOWN_TIME: float = env_float("DYSON_MQTT_MIN_DOWN_TIME", 5.0)
DYSON_MQTT_RECONNECT_DELAY: float = env_float("DYSON_MQTT_RECONNECT_DELAY", 1.0)
DYSON_MQTT_RECONNECT_INTERVAL: float = env_float("DYSON_MQTT_RECONNECT_INTERVAL", 15.0)
DYSON_MQTT_CONNECTION_WATCHDOG: float = env_float("DYSON_MQTT_CONNECTION_WATCHDOG", 60.0)
DYSON_MQTT_KEEPALIVE: int = int(env_float("DYSON_MQTT_KEEPALIVE", 10))
SHORT_SESSION_SECONDS: float = 10.0

# Logging Configuration
DYSON_MQTT_LOG_FORMAT: str = os.environ.get("DYSON_MQTT_LOG_FORMAT", "human")  # "json", "human", or "both"
DYSON_MQTT_LOG_JSON_FILE: str = os.environ.get("DYSON_MQTT_LOG_JSON_FILE", "")
DYSON_MQTT_LOG_HUMAN_OUTPUT: str = os.environ.get("DYSON_MQTT_LOG_HUMAN_OUTPUT", "stdout")
DYSON_MQTT_LOG_CORRELATION_ENABLED: bool = env_flag("DYSON_MQTT_LOG_CORRELATION_ENABLED", default=True)

# MQTT protocol values
MQTT_QOS_AT_LEAST_ONCE: int = 1
MQTT_SUBACK_FAILURE: int = 0x80
TOPIC_PLACEHOLDER: str = "@"
WILDCARD_TOPIC: str = "#"

# Messages that indicate that the device is going offline
UNREACHABLE_MESSAGES: frozenset[str] = frozenset({"GOODBYE", "GONE-AWAY"})

# ANSI styling for payload logging
ANSI_RESET = "\x1b[0m"
ANSI_MESSAGE = "\x1b[36m"
ANSI_PUBLISH = "\x1b[95m"
ANSI_RECEIVE = "\x1b[92m"
ANSI_TIME = "\x1b[90m"
ANSI_STRIKE = "\x1b[9m"
ANSI_STRIKE_RESET = "\x1b[29m"
