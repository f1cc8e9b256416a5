"""
Type definitions for the drift scanner.

Aliases shared by the normaliser, the collaborators and the reporter, so raw
and canonical shapes are named the same way everywhere.
"""

from typing import Any, Dict, Mapping, Union

# boto3 service clients are generated at runtime and ship without stubs
EC2Client = Any
S3Client = Any
IAMClient = Any

# A resource as handed over by a collaborator, before normalisation
RawResource = Mapping[str, Any]

# Canonical leaf values after normalisation
ScalarValue = Union[str, int, float, bool]
FlatAttributes = Dict[str, ScalarValue]

ReportDict = Dict[str, Any]
