"""Processing stages and the batch pipelines built from them."""
