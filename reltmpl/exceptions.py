class ReltmplError(Exception):
    # base exception for all application-specific errors.
    pass

class ConfigError(ReltmplError):
    # errors related to configuration.
    pass

class OutputError(ReltmplError):
    # errors during output operations.
    pass

class TemplateError(ReltmplError):
    # errors related to template parsing or rendering.
    pass

class TemplateSyntaxError(TemplateError):
    # malformed template text, raised at parse time.
    def __init__(self, message: str, name: str = "tmpl", line: int = 1):
        self.name = name
        self.line = line
        super().__init__(f"template: {name}:{line}: {message}")

class TemplateExecError(TemplateError):
    # failures while executing a parsed template.
    def __init__(self, message: str, name: str = "tmpl", line: int = 1, node: str = ""):
        self.name = name
        self.line = line
        self.node = node
        location = f' executing "{name}" at <{node}>:' if node else ""
        super().__init__(f"template: {name}:{line}:{location} {message}")

class MissingFieldError(TemplateExecError):
    # template referenced a field or map key that is not set.
    pass

class ExpectedSingleEnvError(TemplateError):
    # the value must be a single {{ .Env.VAR }} reference.
    def __init__(self):
        super().__init__("expected {{ .Env.VAR_NAME }} only (no plain-text or other interpolation)")
