"""Migration planning and execution."""

from .executor import ActionResult, MigrationExecutionResult, execute_migration_plan
from .planner import create_enhanced_migration_plan, create_migration_plan, populate_affected_imports
from .type_executor import execute_type_migration_plan
from .type_planner import create_type_migration_plan

__all__ = [
    "ActionResult",
    "MigrationExecutionResult",
    "create_enhanced_migration_plan",
    "create_migration_plan",
    "create_type_migration_plan",
    "execute_migration_plan",
    "execute_type_migration_plan",
    "populate_affected_imports",
]
