# Cached source payloads
CACHE_ENTRY = "timeline:cache:entry:{key}"
# Set of cache keys per service, used for write-through invalidation
CACHE_SERVICE_INDEX = "timeline:cache:service:{service_id}"
