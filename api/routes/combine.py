"""
combine.py — /combine/<name> endpoint serving combined assets.
"""
import logging
from flask import Blueprint, Response
from markupsafe import escape

from combiner.exceptions import CombinedFileNotFound, CombinerError

logger = logging.getLogger("combiner")

combine_bp = Blueprint("combine", __name__)

_combiner = None


def init_combine_bp(combiner):
    global _combiner
    _combiner = combiner


@combine_bp.route("/combine/<name>")
def combine(name):
    """
    Serve a combined file. ``name`` looks like ``<key>-<timestamp>.<ext>``;
    only the key before the first dash is used for the lookup.
    """
    mimetype = "text/css" if name.endswith(".css") else "application/javascript"
    try:
        if name.find("-") < 1:
            raise CombinedFileNotFound(name)

        cache_id = name.split("-", 1)[0]
        return _combiner.get_response(cache_id)
    except CombinerError as e:
        logger.warning(f"Combine request failed for {name}: {e}")
        return _inert_comment(e, 404, mimetype)
    except Exception as e:
        logger.exception(f"Combining {name} raised an error")
        return _inert_comment(e, 500, mimetype)


def _inert_comment(error, status, mimetype):
    """Error text wrapped in a comment so it is harmless when included."""
    return Response(f"/* {escape(str(error))} */", status=status, mimetype=mimetype)
