class HeightEstimator:
    """Running average height and largest observed height.

    The average is the placeholder height of unmeasured items. The maximum
    sizes the pre/post-viewport buffer so pre-rendering keeps pace with the
    single biggest item seen so far.
    """

    def __init__(self, default_height: float):
        self._default_height = float(default_height)
        self._average = float(default_height)
        self._max_observed = float(default_height)
        self._sample_count = 0

    def recompute(self, table):
        heights = table.measured_heights()
        self._sample_count = len(heights)
        if heights:
            self._average = sum(heights) / len(heights)
            self._max_observed = max(self._max_observed, max(heights))
        else:
            # Nothing measured yet; keep the configured default.
            self._average = self._default_height

    def estimate(self) -> float:
        return self._average

    def max_observed(self) -> float:
        return self._max_observed

    @property
    def sample_count(self) -> int:
        return self._sample_count
