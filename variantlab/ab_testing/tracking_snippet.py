"""
Client-side tracking snippet generation.

The snippet is rendered from a Jinja2 template shipped with the package. It
assigns each browser session a sticky variant, tags ``document.body`` with a
variant class, reports one visit per session and exposes
``window.trackConversion(metric)`` for the page's own UI code.
"""

import os
from typing import Optional, Sequence

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from variantlab.ab_testing.models import Variant
from variantlab.config import settings
from variantlab.utils.logging import get_logger

SNIPPET_TEMPLATE = "tracking_snippet.js.j2"


class TrackingSnippetRenderer:
    """Renders the assignment/tracking snippet for an experiment."""

    def __init__(
        self,
        template_dir: Optional[str] = None,
        tracking_endpoint: Optional[str] = None,
    ):
        """Initialize the renderer.

        Args:
            template_dir: Directory holding the snippet template
            tracking_endpoint: URL the snippet posts events to
        """
        self.template_dir = template_dir or self._get_default_template_dir()
        self.tracking_endpoint = tracking_endpoint or settings.TRACKING_ENDPOINT
        self.env = Environment(
            loader=FileSystemLoader(self.template_dir),
            undefined=StrictUndefined,
            keep_trailing_newline=False,
        )
        self.logger = get_logger(f"{__name__}.TrackingSnippetRenderer")

    def _get_default_template_dir(self) -> str:
        return os.path.join(os.path.dirname(__file__), "templates")

    def render(
        self, experiment_id: str, subject_id: str, variants: Sequence[Variant]
    ) -> str:
        """Render the snippet for one experiment.

        Args:
            experiment_id: Experiment identifier embedded in the snippet
            subject_id: Project/page under test, used in a comment only
            variants: Variants in declared order

        Returns:
            A ``<script>`` block ready to be injected into the page
        """
        template = self.env.get_template(SNIPPET_TEMPLATE)
        snippet = template.render(
            experiment_id=experiment_id,
            subject_id=subject_id,
            variants=[variant.to_dict() for variant in variants],
            tracking_endpoint=self.tracking_endpoint,
        )
        self.logger.debug(
            f"Rendered tracking snippet for experiment {experiment_id}",
            extra={"experiment_id": experiment_id, "variants": len(variants)},
        )
        return snippet
