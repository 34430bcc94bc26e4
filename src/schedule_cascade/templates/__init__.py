from .applier import (
    DEFAULT_RECOVERY_TEMPLATES,
    apply_recovery_template,
    apply_target_recovery_percentage,
    broadcast_master_template,
    derive_template_from_percentage,
    extract_recovery_templates,
    update_template_cell,
)

__all__ = ["DEFAULT_RECOVERY_TEMPLATES",
           "apply_recovery_template",
           "apply_target_recovery_percentage",
           "broadcast_master_template",
           "derive_template_from_percentage",
           "extract_recovery_templates",
           "update_template_cell"]
