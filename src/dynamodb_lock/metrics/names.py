"""Names of the metrics published by dynamodb-lock.

Prometheus appends ``_total`` to counters when it exposes them.
"""

NAMESPACE = "dynamodb_distributedlock"

# A lock was successfully acquired.
LOCK_ACQUIRE = f"{NAMESPACE}_lock_acquire"
# An acquisition attempt failed; labelled with ``reason``.
LOCK_ACQUIRE_FAILED = f"{NAMESPACE}_lock_acquire_failed"
# A lock was successfully released.
LOCK_RELEASE = f"{NAMESPACE}_lock_release"
# A release failed; labelled with ``reason``.
LOCK_RELEASE_FAILED = f"{NAMESPACE}_lock_release_failed"
# A retry was executed. The first attempt is not counted.
RETRY_ATTEMPT = f"{NAMESPACE}_retry_attempt"
# Retries were attempted and the policy gave up.
RETRIES_EXHAUSTED = f"{NAMESPACE}_retries_exhausted"
# Duration of acquire / release calls in milliseconds.
LOCK_ACQUIRE_TIMER = f"{NAMESPACE}_lock_acquire_timer_ms"
LOCK_RELEASE_TIMER = f"{NAMESPACE}_lock_release_timer_ms"

# Failure reasons
REASON_CONDITION_CHECK_FAILED = "condition_check_failed"
REASON_THROTTLED = "throttled"
REASON_INTERNAL_ERROR = "internal_error"
REASON_NOT_OWNED = "not_owned"
REASON_UNEXPECTED_EXCEPTION = "unexpected_exception"

ALL_METRIC_NAMES = (
    LOCK_ACQUIRE,
    LOCK_ACQUIRE_FAILED,
    LOCK_RELEASE,
    LOCK_RELEASE_FAILED,
    RETRY_ATTEMPT,
    RETRIES_EXHAUSTED,
    LOCK_ACQUIRE_TIMER,
    LOCK_RELEASE_TIMER,
)
