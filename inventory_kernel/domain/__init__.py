"""Pure domain layer: clock, workflows, order calculator, DTOs."""
