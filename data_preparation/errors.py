class PipelineError(Exception):
    """Base class for failures that abort an analysis run."""


class DataQualityError(PipelineError):
    pass


class SchemaViolationError(DataQualityError):
    def __init__(self, field, value, index=None):
        self.field = field
        self.value = value
        self.index = index
        where = f" (record {index!r})" if index is not None else ""
        super().__init__(f"Value {value!r} is not allowed in column {field!r}{where}")


class JoinKeyAmbiguityError(PipelineError):
    def __init__(self, table, keys):
        self.table = table
        self.keys = sorted(keys)
        preview = ", ".join(map(str, self.keys[:10]))
        super().__init__(
            f"Duplicate join keys in {table!r}: {preview}"
            + (" ..." if len(self.keys) > 10 else "")
        )


class UnmatchedFractionError(PipelineError):
    def __init__(self, table, fraction, threshold):
        self.table = table
        self.fraction = fraction
        self.threshold = threshold
        super().__init__(
            f"{fraction:.2%} of the primary metric has no match in {table!r} "
            f"(threshold {threshold:.2%})"
        )


class NumericDegeneracyError(PipelineError):
    def __init__(self, column, reason):
        self.column = column
        self.reason = reason
        super().__init__(f"Column {column!r}: {reason}")


class FitNonConvergenceError(PipelineError):
    pass
