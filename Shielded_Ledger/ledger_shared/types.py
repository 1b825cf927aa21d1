from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Randomness:
    r: int
    s: Optional[int] = None


@dataclass(frozen=True)
class Note:
    amount:     int
    token_id:   int
    owner_key:  int
    randomness: Randomness
    memo:       Optional[int] = None

@dataclass(frozen=True)
class EncryptionKeypair:
    public_key: bytes
    secret_key: bytes

@dataclass(frozen=True)
class DerivedKeypair:
    keypair:       EncryptionKeypair
    deterministic: bool
    mode:          str

@dataclass
class KeyStoreEntry:
    identity_id:   str
    public_key:    bytes
    secret_key:    bytes
    deterministic: bool
    mode:          str
    created_at:    int

@dataclass(frozen=True)
class EncryptedMessage:
    id:            str
    recipient_key: str
    ciphertext:    str
    kind:          str
    created_at:    str
    sender_key:    Optional[str] = None
    read_at:       Optional[str] = None

@dataclass(frozen=True)
class MessageFilter:
    recipient_key: Optional[str] = None
    sender_key:    Optional[str] = None
    unread_only:   bool = False
    limit:         int = 100
    offset:        int = 0

@dataclass
class MessagePage:
    messages: list[EncryptedMessage]
    total:    int

@dataclass(frozen=True)
class NoteStatus:
    note:          Note
    nullifier_hex: str
    is_spent:      bool
    amount:        int

@dataclass(frozen=True)
class AccountOverview:
    balance:         int
    notes:           tuple[NoteStatus, ...]
    spendable_count: int
    total_notes:     int

    @property
    def spendable_notes(self) -> list[Note]:
        return [s.note for s in self.notes if not s.is_spent]

@dataclass(frozen=True)
class OutputNote:
    amount:    int
    owner_key: int
    token_id:  int
    memo:      int = 0

@dataclass(frozen=True)
class SplitResult:
    out1:                OutputNote
    out2:                OutputNote
    recipient_amount:    int
    change_amount:       int
    recipient_gets_out1: bool
    randomized:          bool

@dataclass
class Recipient:
    owner_key:         int
    enc_public_key:    bytes

@dataclass
class SettlementReceipt:
    tx_id:        str
    output_notes: list[Note] = field(default_factory=list)
    commitments:  list[str] = field(default_factory=list)
