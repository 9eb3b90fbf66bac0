"""Constants used across the operator."""

# Stream custom resource coordinates
STREAM_GROUP = "jetstream.nats.io"
STREAM_VERSION = "v1"
STREAM_PLURAL = "streams"
STREAM_KIND = "Stream"

# Finalizer that gates physical deletion of a Stream object
STREAM_FINALIZER_KEY = "streamfinalizer.jetstream.nats.io"

# The only condition type written by the operator
STREAM_READY_COND_TYPE = "Ready"

# Maximum number of conditions retained on a Stream status
MAX_CONDITIONS = 10

# Component name reported on Kubernetes events
EVENT_SOURCE_COMPONENT = "stream-operator"
