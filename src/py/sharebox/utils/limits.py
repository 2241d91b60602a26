from typing import NamedTuple
from enum import Enum
import resource


class LimitType(Enum):
	Files = resource.RLIMIT_NOFILE


# Each download holds a file handle on top of its socket for as long as it
# streams, so concurrent players need a high files limit.
REASONABLE_LIMITS: dict[LimitType, int] = {
	LimitType.Files: 10 * 10240,
}


class Limit(NamedTuple):
	type: LimitType
	soft: int
	hard: int


def limit(scope: LimitType) -> Limit:
	return Limit(scope, *resource.getrlimit(scope.value))


def unlimit(
	scope: LimitType, ratio: float = 1.0, *, maximum: int | None = 0
) -> int | bool:
	"""Raises the soft limit towards the hard limit, capped to a reasonable
	maximum as some systems report limits that overflow."""
	lm = limit(scope)
	if lm.hard == resource.RLIM_INFINITY:
		target = REASONABLE_LIMITS.get(scope, lm.soft)
	else:
		target = int(lm.soft + ratio * (lm.hard - lm.soft))
	maximum = REASONABLE_LIMITS.get(scope) if maximum == 0 else maximum
	if maximum:
		target = min(maximum, target)
	if lm.soft != resource.RLIM_INFINITY and target <= lm.soft:
		return lm.soft
	try:
		resource.setrlimit(scope.value, (target, lm.hard))
		return target
	except (ValueError, OSError):
		return False


# EOF
