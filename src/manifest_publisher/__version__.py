"""Version information for the manifest publisher.

Single source of truth for version number.
Follows PEP 440 and semantic versioning principles.
"""

__version__ = "1.2.0"
__version_info__ = tuple(int(part) for part in __version__.split("."))

# Version history:
# 1.2.0 - Submission deadline, replace-version on the submission branch
# 1.1.0 - GitHub App installation tokens, fork sync before branch creation
# 1.0.0 - Initial release
