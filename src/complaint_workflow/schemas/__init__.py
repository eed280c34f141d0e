"""JSON Schema generation for the persisted work item contracts."""
