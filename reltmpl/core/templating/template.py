"""
The Template object: a Field Set built from a release context, enriched with
environment, artifact and build data, and applied to template strings.
"""
import re
from typing import Any, Dict, Iterable, Mapping, Optional
import structlog

from reltmpl.config.settings import Artifact, BuildOptions, ReleaseContext
from reltmpl.exceptions import ExpectedSingleEnvError
from . import fields as f
from .context_builder import build_general_fields
from .helpers import BUILTIN_HELPERS
from .renderer import TemplateRenderer

log = structlog.get_logger(__name__)

# A single {{ .Env.NAME }} reference and nothing else. This discourages
# hard-coded credentials rather than trying to catch every possible case.
ENV_ONLY_RE = re.compile(r"^{{\s*\.Env\.[^.\s}]+\s*}}$", re.ASCII)

def _replace(replacements: Mapping[str, str], original: str) -> str:
    result = replacements.get(original, "")
    return result or original

class Template:
    """Holds the Field Set that template strings are applied against.

    Enrichment methods mutate the Field Set in place and return ``self`` so
    they can be chained::

        Template.new(ctx).with_artifact(artifact, replacements).apply("{{ .Binary }}_{{ .Os }}")

    A Template is not safe for concurrent enrichment; use :meth:`copy` to
    derive one per artifact or build.
    """

    def __init__(self, fields: Optional[f.Fields] = None):
        self.fields: f.Fields = dict(fields or {})

    @classmethod
    def new(cls, ctx: ReleaseContext) -> "Template":
        return cls(build_general_fields(ctx))

    def copy(self) -> "Template":
        return Template(self.fields)

    def with_env_s(self, envs: Iterable[str]) -> "Template":
        """Overrides the Env field with a list of ``KEY=VALUE`` strings, split on the first ``=``."""
        result: Dict[str, str] = {}
        for env in envs:
            key, value = env.split("=", 1)
            result[key] = value
        return self.with_env(result)

    def with_env(self, env: Mapping[str, str]) -> "Template":
        self.fields[f.ENV] = env
        return self

    def with_extra_fields(self, extra: Mapping[str, Any]) -> "Template":
        # overrides fields with the same name.
        for key, value in extra.items():
            self.fields[key] = value
        return self

    def with_artifact(self, artifact: Artifact, replacements: Optional[Mapping[str, str]] = None) -> "Template":
        """Populates the artifact fields, passing Os/Arch/Arm/Mips through ``replacements``."""
        replacements = replacements or {}
        binary = artifact.extra.get(f.BINARY)
        if binary is None:
            binary = self.fields.get(f.PROJECT_NAME, "")
        self.fields[f.OS] = _replace(replacements, artifact.goos)
        self.fields[f.ARCH] = _replace(replacements, artifact.goarch)
        self.fields[f.ARM] = _replace(replacements, artifact.goarm)
        self.fields[f.MIPS] = _replace(replacements, artifact.gomips)
        self.fields[f.BINARY] = str(binary)
        self.fields[f.ARTIFACT_NAME] = artifact.name
        self.fields[f.ARTIFACT_PATH] = artifact.path
        upload_hash = artifact.extra.get(f.ARTIFACT_UPLOAD_HASH)
        self.fields[f.ARTIFACT_UPLOAD_HASH] = "" if upload_hash is None else str(upload_hash)
        log.debug("artifact_fields_applied", artifact=artifact.name, os=self.fields[f.OS], arch=self.fields[f.ARCH])
        return self

    def with_build_options(self, opts: BuildOptions) -> "Template":
        return self.with_extra_fields(build_opts_to_fields(opts))

    def apply(self, s: str) -> str:
        """Applies the template string ``s`` against the Field Set."""
        renderer = TemplateRenderer(s, helpers=BUILTIN_HELPERS)
        return renderer.render(self.fields)

    def apply_single_env_only(self, s: str) -> str:
        """Applies ``s`` only if it is empty or a single ``{{ .Env.VAR }}`` reference."""
        s = s.strip()
        if not s:
            return ""
        if not ENV_ONLY_RE.match(s):
            log.debug("env_only_template_rejected", template=s)
            raise ExpectedSingleEnvError()
        return TemplateRenderer(s).render(self.fields)

def build_opts_to_fields(opts: BuildOptions) -> f.Fields:
    return {
        f.TARGET: opts.target,
        f.EXT: opts.ext,
        f.NAME: opts.name,
        f.PATH: opts.path,
        f.OS: opts.os,
        f.ARCH: opts.arch,
    }
