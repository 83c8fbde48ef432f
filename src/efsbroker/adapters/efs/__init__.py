from efsbroker.adapters.efs.aws import AwsEfsProvider

__all__ = ["AwsEfsProvider"]
