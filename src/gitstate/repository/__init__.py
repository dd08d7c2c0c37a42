"""Per-repository state, change classification and operation ordering."""

from gitstate.repository.classifier import ClassifiedChanges, classify_changes
from gitstate.repository.events import EventEmitter, Subscription
from gitstate.repository.repository import Repository, sniff_object_type
from gitstate.repository.serializer import OperationSerializer
from gitstate.repository.state import InputBox, RefreshStatus, RepositoryState, RepositoryUIState

__all__ = [
    "ClassifiedChanges",
    "EventEmitter",
    "InputBox",
    "OperationSerializer",
    "RefreshStatus",
    "Repository",
    "RepositoryState",
    "RepositoryUIState",
    "Subscription",
    "classify_changes",
    "sniff_object_type",
]
