"""rpview - image viewer core: per-image view state, filters, animation, SVG, async loading."""
