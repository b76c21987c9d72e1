"""Control-plane side channels: interrupts and the self-authoring gate."""

from .interrupts import InterruptController
from .self_authoring import SelfAuthoringGate

__all__ = ["InterruptController", "SelfAuthoringGate"]
