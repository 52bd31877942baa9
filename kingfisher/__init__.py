"""Secret-scanning building blocks: content inspection, Git URLs, commit graphs, repo listing."""

__version__ = "1.19.0"