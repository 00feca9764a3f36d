from cloudpool.driver.base import MEMBERSHIP_STATUS_TAG, SERVICE_STATE_TAG, CloudPoolDriver
from cloudpool.driver.memory import InMemoryDriver

__all__ = [
    "CloudPoolDriver",
    "InMemoryDriver",
    "MEMBERSHIP_STATUS_TAG",
    "SERVICE_STATE_TAG",
]
