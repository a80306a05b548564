"""Controllers run by the background process."""

from admitlayer.controllers.controller import Controller, Runner
from admitlayer.controllers.queue import QueueController

__all__ = ["Controller", "QueueController", "Runner"]
