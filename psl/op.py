from enum import Enum


class Operation(Enum):
    ASSIGN = 1
    ADD_ASSIGN = 2
    SUB_ASSIGN = 3
    MUL_ASSIGN = 4
    DIV_ASSIGN = 5

    # Binary
    ADD = 102
    SUB = 103
    MUL = 104
    DIV = 105
    MOD = 106

    # Unary
    UA_NEG = 121

    # comparison
    CMP_GT = 200
    CMP_LT = 201
    CMP_LE = 202
    CMP_GE = 203
    CMP_NE = 204
    CMP_EQ = 205

    # logic
    LG_OR = 300
    LG_AND = 301
    LG_NOT = 302

    BIT_OR = 400
    BIT_AND = 401
    BIT_XOR = 402
    BIT_NOT = 403


class Interpolation(Enum):
    '''How an operation behaves when an operand is interpolated, that is,
    computed in an earlier stage than the one consuming the result.'''
    # Interpolating the operands and then combining them is the same as
    # combining first and interpolating the result.
    Distributes = 1
    # Distributes, unless the divisor is interpolated.
    DistributesUnlessDivisor = 2
    # The operation has to run in the consuming stage.
    ForcesTargetStage = 3


_interpolation_policy = {
    Operation.ASSIGN: Interpolation.Distributes,
    Operation.ADD_ASSIGN: Interpolation.Distributes,
    Operation.SUB_ASSIGN: Interpolation.Distributes,
    Operation.MUL_ASSIGN: Interpolation.Distributes,
    Operation.DIV_ASSIGN: Interpolation.DistributesUnlessDivisor,

    Operation.ADD: Interpolation.Distributes,
    Operation.SUB: Interpolation.Distributes,
    Operation.MUL: Interpolation.Distributes,
    Operation.DIV: Interpolation.DistributesUnlessDivisor,

    Operation.UA_NEG: Interpolation.Distributes,
}


def GetInterpolationPolicy(operation):
    return _interpolation_policy.get(operation,
                                     Interpolation.ForcesTargetStage)


def IsComparison(op):
    return op.value >= 200 and op.value < 210


def IsAssignment(op):
    return op.value < 100


_compound_assignment = {
    Operation.ADD_ASSIGN: Operation.ADD,
    Operation.SUB_ASSIGN: Operation.SUB,
    Operation.MUL_ASSIGN: Operation.MUL,
    Operation.DIV_ASSIGN: Operation.DIV,
}


def GetCompoundOperation(op):
    '''For ``+=`` and friends, return the underlying binary operation.'''
    return _compound_assignment.get(op)


_op_str_map = {
    '=': Operation.ASSIGN,
    '+=': Operation.ADD_ASSIGN,
    '-=': Operation.SUB_ASSIGN,
    '*=': Operation.MUL_ASSIGN,
    '/=': Operation.DIV_ASSIGN,

    '+': Operation.ADD,
    '-': Operation.SUB,
    '/': Operation.DIV,
    '*': Operation.MUL,
    '%': Operation.MOD,

    '&&': Operation.LG_AND,
    '||': Operation.LG_OR,
    '!': Operation.LG_NOT,

    '>': Operation.CMP_GT,
    '<': Operation.CMP_LT,
    '>=': Operation.CMP_GE,
    '<=': Operation.CMP_LE,
    '==': Operation.CMP_EQ,
    '!=': Operation.CMP_NE,

    '|': Operation.BIT_OR,
    '&': Operation.BIT_AND,
    '~': Operation.BIT_NOT,
    '^': Operation.BIT_XOR
}

_str_op_map = {v: k for (k, v) in _op_str_map.items()}
_str_op_map[Operation.UA_NEG] = '-'


def StrToOp(op):
    assert op in _op_str_map, "Unknown operation: '{}".format(op)
    return _op_str_map[op]


def OpToStr(s):
    assert s in _str_op_map, "Unknown operation ID: '{}'".format(s)
    return _str_op_map[s]
