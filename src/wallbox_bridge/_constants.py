"""Internal constants shared across the bridge."""

# ------------------------------------------------------------------
# Bus topics
# ------------------------------------------------------------------

TOPIC_PREFIX_TEMPLATE = "wallbox_{serial}"
AVAILABILITY_ONLINE = "online"
AVAILABILITY_OFFLINE = "offline"
MQTT_QOS = 1

# ------------------------------------------------------------------
# Charger data source
# ------------------------------------------------------------------

REDIS_STATE_HASH = "state"
REDIS_M2W_HASH = "m2w"
REDIS_TELEMETRY_HASH = "telemetry"
TELEMETRY_EVENTS_CHANNEL = "/wbx/telemetry/events"

# Prefix of the telemetry hash fields; events carry the bare sensor id.
TELEMETRY_FIELD_PREFIX = "telemetry."

CHARGER_TYPE_CPB1 = "CPB1"

# ------------------------------------------------------------------
# POSIX message queues used by the charger firmware
# ------------------------------------------------------------------

MQ_LOGIN = "WALLBOX_MYWALLBOX_WALLBOX_LOGIN"
MQ_STATEMACHINE = "WALLBOX_MYWALLBOX_WALLBOX_STATEMACHINE"
MQ_MESSAGE_SIZE = 1024

EVENT_REQUEST_LOCK = "EVENT_REQUEST_LOCK"
EVENT_REQUEST_LOGIN = "EVENT_REQUEST_LOGIN#{user_id}.000000"
EVENT_REQUEST_RESUME = "EVENT_REQUEST_USER_ACTION#1.000000"
EVENT_REQUEST_PAUSE = "EVENT_REQUEST_USER_ACTION#2.000000"
