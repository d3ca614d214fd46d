"""reltmpl: expand release templates against build, git and artifact fields."""

__version__ = "0.1.0"
