"""Engine — derivation, validation, generation, execution and rollback."""
