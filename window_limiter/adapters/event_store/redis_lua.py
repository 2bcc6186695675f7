"""Redis Lua scripts for the sorted-set event store.

These scripts provide atomic operations to prevent TOCTOU race conditions
when several processes check and record events for the same history.
"""

# Atomic check-and-record over one sorted set (member = "<ts>:<nonce>", score = ts).
#
# KEYS[1]  sorted set for one (namespace, identity, bucket)
# ARGV[1]  timestamp of the new event
# ARGV[2]  member name of the new event
# ARGV[3]  retention in seconds (key TTL)
# ARGV[4]  events with score <= this value have outlived the retention
# ARGV[5]  widest window start; scores after it are returned to the caller
# ARGV[6..] pairs of (requests, since)
#
# Returns {recorded (0|1), {member, score, member, score, ...}}
RECORD_IF_UNDER_LIMIT_SCRIPT = """
    local key = KEYS[1]
    local timestamp = ARGV[1]
    local member = ARGV[2]
    local ttl = tonumber(ARGV[3])
    local expired_before = ARGV[4]
    local widest = ARGV[5]

    redis.call('ZREMRANGEBYSCORE', key, '-inf', expired_before)

    local recorded = 1
    for i = 6, #ARGV, 2 do
        local requests = tonumber(ARGV[i])
        local count = redis.call('ZCOUNT', key, '(' .. ARGV[i + 1], '+inf')
        if count >= requests then
            recorded = 0
            break
        end
    end

    if recorded == 1 then
        redis.call('ZADD', key, timestamp, member)
        redis.call('EXPIRE', key, ttl)
    end

    local scores = redis.call('ZRANGEBYSCORE', key, '(' .. widest, '+inf', 'WITHSCORES')
    return {recorded, scores}
"""
