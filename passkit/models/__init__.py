from .pass_record import PassRecord, PassStatus

__all__ = ["PassRecord", "PassStatus"]
