"""Branded types for Versa identifiers.

NewType wrappers so a checkpoint id can't be passed where a branch name is
expected without the type checker noticing. Zero runtime cost.
"""

from typing import Literal, NewType

CheckpointId = NewType("CheckpointId", str)
BranchName = NewType("BranchName", str)

ChangeType = Literal["edit", "ai-edit", "manual", "save", "auto"]

MAIN_BRANCH = BranchName("main")
