"""
Instruction Tracing for CHIP-8 VM
=================================

Mnemonic rendering for diagnostic traces. With tracing enabled the CPU
logs every executed instruction through this module:

    $0200: 6005      LD V0, $05
    $0202: A22A      LD I, $22A
    $0204: D015      DRW V0, V1, 5

Words outside the instruction table render as `DW $XXXX` so a trace never
fails on data interleaved with code.
"""

from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class DisassembledInstruction:
    """
    A single decoded instruction word.

    Attributes:
        address: Memory address of the instruction
        opcode: The raw 16-bit word
        mnemonic: Instruction mnemonic (e.g., "LD", "DRW")
        operand_str: Formatted operands (may be empty)
        valid: False for words outside the instruction table
    """
    address: int
    opcode: int
    mnemonic: str
    operand_str: str
    valid: bool = True

    @property
    def text(self) -> str:
        """Mnemonic and operands without address/bytes."""
        if self.operand_str:
            return f"{self.mnemonic} {self.operand_str}"
        return self.mnemonic

    def __str__(self) -> str:
        """Format as listing line: ADDRESS: WORD  MNEMONIC OPERANDS"""
        return f"${self.address:04X}: {self.opcode:04X}      {self.text}"


def disassemble(opcode: int) -> str:
    """
    Render one instruction word as text.

    Args:
        opcode: 16-bit instruction word

    Returns:
        Mnemonic with operands, e.g. "ADD V3, V4"
    """
    return decode(opcode).text


def decode(opcode: int, address: int = 0) -> DisassembledInstruction:
    """Decode an instruction word into a DisassembledInstruction."""
    x = (opcode >> 8) & 0xF
    y = (opcode >> 4) & 0xF
    n = opcode & 0xF
    kk = opcode & 0xFF
    nnn = opcode & 0xFFF

    def op(mnemonic: str, operands: str = "") -> DisassembledInstruction:
        return DisassembledInstruction(address, opcode, mnemonic, operands)

    match opcode >> 12:
        case 0x0:
            if opcode == 0x00E0:
                return op("CLS")
            if opcode == 0x00EE:
                return op("RET")
            return op("JP", f"${nnn:03X}")
        case 0x1:
            return op("JP", f"${nnn:03X}")
        case 0x2:
            return op("CALL", f"${nnn:03X}")
        case 0x3:
            return op("SE", f"V{x:X}, ${kk:02X}")
        case 0x4:
            return op("SNE", f"V{x:X}, ${kk:02X}")
        case 0x5 if n == 0:
            return op("SE", f"V{x:X}, V{y:X}")
        case 0x6:
            return op("LD", f"V{x:X}, ${kk:02X}")
        case 0x7:
            return op("ADD", f"V{x:X}, ${kk:02X}")
        case 0x8:
            alu = {
                0x0: "LD", 0x1: "OR", 0x2: "AND", 0x3: "XOR",
                0x4: "ADD", 0x5: "SUB", 0x7: "SUBN",
            }
            if n in alu:
                return op(alu[n], f"V{x:X}, V{y:X}")
            if n == 0x6:
                return op("SHR", f"V{x:X}")
            if n == 0xE:
                return op("SHL", f"V{x:X}")
        case 0x9 if n == 0:
            return op("SNE", f"V{x:X}, V{y:X}")
        case 0xA:
            return op("LD", f"I, ${nnn:03X}")
        case 0xB:
            return op("JP", f"V0, ${nnn:03X}")
        case 0xC:
            return op("RND", f"V{x:X}, ${kk:02X}")
        case 0xD:
            return op("DRW", f"V{x:X}, V{y:X}, {n}")
        case 0xE:
            if kk == 0x9E:
                return op("SKP", f"V{x:X}")
            if kk == 0xA1:
                return op("SKNP", f"V{x:X}")
        case 0xF:
            forms = {
                0x07: f"V{x:X}, DT",
                0x0A: f"V{x:X}, K",
                0x15: f"DT, V{x:X}",
                0x18: f"ST, V{x:X}",
                0x29: f"F, V{x:X}",
                0x33: f"B, V{x:X}",
                0x55: f"[I], V{x:X}",
                0x65: f"V{x:X}, [I]",
                0x75: f"R, V{x:X}",
                0x85: f"V{x:X}, R",
            }
            if kk == 0x1E:
                return op("ADD", f"I, V{x:X}")
            if kk in forms:
                return op("LD", forms[kk])

    return DisassembledInstruction(address, opcode, "DW", f"${opcode:04X}", valid=False)


def disassemble_block(data: bytes, start_address: int = 0x200) -> List[DisassembledInstruction]:
    """
    Decode a run of instruction words.

    A trailing odd byte is ignored.
    """
    result = []
    for offset in range(0, len(data) - 1, 2):
        word = (data[offset] << 8) | data[offset + 1]
        result.append(decode(word, start_address + offset))
    return result
