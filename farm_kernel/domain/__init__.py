"""Pure domain pieces of the posting kernel: clock, lifecycle, protocols."""
