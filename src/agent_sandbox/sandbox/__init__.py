"""Command execution sandbox: validation, tokenizing, spawning and safe delete."""

from agent_sandbox.sandbox.executor import (
    ALLOWED_COMMANDS,
    SAFE_ENV_ALLOWLIST,
    CommandResult,
    ExecutionSandbox,
    build_safe_env,
)
from agent_sandbox.sandbox.safe_delete import STAGING_DIR_NAME, SafeDeleter, extract_targets
from agent_sandbox.sandbox.tokenizer import RawCommand, tokenize
from agent_sandbox.sandbox.validator import (
    COMMAND_SCHEMAS,
    CommandSchema,
    ValidationResult,
    validate_arguments,
    validate_raw_command,
)
