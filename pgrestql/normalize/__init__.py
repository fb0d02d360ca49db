"""pgrestql normalization layer: raw HTTP response -> ResponseEnvelope."""
from pgrestql.normalize.classifier import ErrorClassifier
from pgrestql.normalize.normalizer import (
    ResponseNormalizer,
    paginate_envelope,
    parse_content_range,
)

__all__ = ["ErrorClassifier", "ResponseNormalizer", "paginate_envelope", "parse_content_range"]
