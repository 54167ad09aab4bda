"""Pure domain logic shared by services, tasks and schemas."""
