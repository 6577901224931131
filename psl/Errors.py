from enum import Enum


class ErrorMessage:
    def __init__(self, code, severity, message):
        self.code = code
        self.severity = severity
        self.message = message

    def Format(self, *args):
        return self.message.format(*args)

    def Raise(self, *args, location=None):
        raise CompileException(self, *args, location=location)


class Severity(Enum):
    ERROR = 1
    WARNING = 2
    INFO = 3


class ErrorHandler:
    '''Collects diagnostics. Errors and warnings are counted separately so a
    caller can decide whether to continue after a phase.'''
    def __init__(self):
        self.errors = 0
        self.warnings = 0
        self.messages = []

    def Log(self, messageText, message):
        if message.severity == Severity.ERROR:
            self.errors += 1
        elif message.severity == Severity.WARNING:
            self.warnings += 1
        self.messages.append(messageText)

    def Report(self, message, *args, location=None):
        '''Log ``message`` without raising.'''
        self.Log(_FormatMessageText(message, message.Format(*args),
                                    location), message)

    def HasErrors(self):
        return self.errors > 0

    def Print(self, output=None):
        for message in self.messages:
            print(message, file=output)


class NullErrorHandler(ErrorHandler):
    def Log(self, messageText, message):
        pass


class CompileExceptionToErrorHandler:
    '''Turns a ``CompileException`` raised inside the block into a logged
    message. ``onError`` is invoked for every swallowed exception.'''
    def __init__(self, errorHandler, onError=None):
        self.errorHandler = errorHandler
        self.onError = onError

    def __enter__(self):
        pass

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            return True
        if issubclass(exc_type, CompileException):
            self.errorHandler.Log(exc_val.messageText, exc_val.message)
            if self.onError is not None:
                self.onError()
            return True
        return False


def _FormatMessageText(message, text, location):
    kind = 'error' if message.severity == Severity.ERROR else \
        message.severity.name.lower()
    if location is not None and not location.IsUnknown:
        return '{}: {} P{}: {}'.format(location, kind, message.code, text)
    return '{} P{}: {}'.format(kind, message.code, text)


class CompileException(Exception):
    def __init__(self, message, *args, location=None):
        self.message = message
        self.location = location
        self.messageText = _FormatMessageText(
            message, message.Format(*args), location)

    def __str__(self):
        return self.messageText


class CatalogException(CompileException):
    '''The builtin catalog could not be populated from the type universe.
    This is a configuration problem, not a problem with a program.'''
    def __init__(self, missing):
        super().__init__(ERROR_MISSING_BUILTIN_DECLARATION, ', '.join(missing))
        self.missing = missing


class ProgramException(CompileException):
    '''A program failed validation. All collected messages are kept.'''
    def __init__(self, name, messages):
        super().__init__(ERROR_INVALID_PROGRAM, name, len(messages))
        self.messages = messages


ERROR_INTERNAL_COMPILER_ERROR = ErrorMessage(1001, Severity.ERROR,
    '''Internal compiler error: {}''')
ERROR_INVALID_PROGRAM = ErrorMessage(1002, Severity.ERROR,
    '''Pipeline '{}' is invalid, {} error(s) reported.''')

ERROR_MISSING_BUILTIN_DECLARATION = ErrorMessage(1101, Severity.ERROR,
    '''Unable to locate declaration of builtin type/function/method: {}. Is the type universe complete?''')

# Front-end typing
ERROR_INVALID_SWIZZLE_MASK = ErrorMessage(2001, Severity.ERROR,
    '''Invalid swizzle mask '{}'. A swizzle mask may contain only 'rgba' or 'xyzw' selectors.''')
ERROR_MIXED_SWIZZLE_MASK = ErrorMessage(2002, Severity.ERROR,
    '''Invalid swizzle mask '{}'. A swizzle mask may not contain mixed selectors.''')
ERROR_SWIZZLE_OUT_OF_RANGE = ErrorMessage(2003, Severity.ERROR,
    '''Swizzle mask '{}' selects components not present in type '{}'.''')
ERROR_CANNOT_SWIZZLE_TYPE = ErrorMessage(2004, Severity.ERROR,
    '''Type '{0}' does not support swizzle.''')
ERROR_INCOMPATIBLE_TYPES = ErrorMessage(2005, Severity.ERROR,
    '''Type '{}' is incompatible with type '{}'.''')
ERROR_INVALID_BINARY_EXPRESSION_OPERATION = ErrorMessage(2007, Severity.ERROR,
    '''Binary expression using {} cannot be applied on types: '{}', '{}'.''')
ERROR_UNKNOWN_SYMBOL = ErrorMessage(2008, Severity.ERROR,
    '''Unknown symbol '{}'.''')
ERROR_UNKNOWN_TYPE = ErrorMessage(2009, Severity.ERROR,
    '''Unknown type '{}'.''')
ERROR_UNKNOWN_MEMBER = ErrorMessage(2010, Severity.ERROR,
    '''Type '{}' has no member '{}'.''')
ERROR_WRONG_ARGUMENT_COUNT = ErrorMessage(2011, Severity.ERROR,
    ''''{}' expects {} argument(s), got {}.''')
ERROR_VARIABLE_NAME_ALREADY_USED = ErrorMessage(2012, Severity.ERROR,
    '''Variable '{}' is already declared at {}.''')
ERROR_SYNTAX = ErrorMessage(2013, Severity.ERROR,
    '''Syntax error at '{}'.''')
ERROR_DUPLICATE_FIELD = ErrorMessage(2014, Severity.ERROR,
    '''Structure '{}' declares field '{}' more than once.''')

# Program model
ERROR_BAD_POSITION_TYPE = ErrorMessage(3001, Severity.ERROR,
    '''Vertex position '{}' must be a float4.''')
ERROR_BAD_COLOR_TARGET_TYPE = ErrorMessage(3002, Severity.ERROR,
    '''Fragment color target '{}' must be a float4.''')
ERROR_BAD_VERTEX_BUFFER_TYPE = ErrorMessage(3003, Severity.ERROR,
    '''Vertex buffer '{}' must be a structure.''')
ERROR_VERTEX_BUFFER_OUT_OF_RANGE = ErrorMessage(3004, Severity.ERROR,
    '''Vertex buffer index {} of '{}' must be in range [0,{}).''')
ERROR_VERTEX_BUFFER_NOT_UNIQUE = ErrorMessage(3005, Severity.ERROR,
    '''Vertex buffer index {} of '{}' is already used by '{}'.''')
ERROR_BAD_TEXTURE_TYPE = ErrorMessage(3006, Severity.ERROR,
    '''Texture '{}' must be a texture type.''')
ERROR_TEXTURE_OUT_OF_RANGE = ErrorMessage(3007, Severity.ERROR,
    '''Texture index {} of '{}' must be in range [0,{}).''')
ERROR_TEXTURE_NOT_UNIQUE = ErrorMessage(3008, Severity.ERROR,
    '''Texture index {} of '{}' is already used by '{}'.''')
ERROR_COLOR_TARGET_OUT_OF_RANGE = ErrorMessage(3009, Severity.ERROR,
    '''Color target index {} of '{}' must be in range [0,{}).''')
ERROR_COLOR_TARGET_NOT_UNIQUE = ErrorMessage(3010, Severity.ERROR,
    '''Color target index {} of '{}' is already used by '{}'.''')
ERROR_BAD_INTEGER_WIDTH = ErrorMessage(3011, Severity.ERROR,
    '''Field '{}' of '{}': integers must be 32 bits in length.''')
ERROR_BAD_FIELD_TYPE = ErrorMessage(3012, Severity.ERROR,
    '''Field '{}' of '{}' has type '{}'; fields must be a builtin vector or matrix, float, double or 32-bit integer.''')
ERROR_SAMPLER_LIMIT_REACHED = ErrorMessage(3013, Severity.ERROR,
    '''Maximum sampler limit of {} reached.''')
ERROR_NON_CONSTANT_SAMPLER = ErrorMessage(3014, Severity.ERROR,
    '''Sampler arguments must be compile-time constants.''')
ERROR_MALFORMED_SAMPLER = ErrorMessage(3015, Severity.ERROR,
    '''Sampler structure is not consistent: {}.''')
ERROR_BAD_UNIFORM_TYPE = ErrorMessage(3016, Severity.ERROR,
    '''Uniform '{}' has type '{}', which cannot be bound to a stage.''')
ERROR_NO_STAGE_OUTPUT = ErrorMessage(3017, Severity.ERROR,
    '''Pipeline '{}' does not write a position or color target.''')

# Expressions
ERROR_UNSUPPORTED_STATEMENT = ErrorMessage(4001, Severity.ERROR,
    '''Statements of type '{}' are not supported in pipeline bodies.''')
ERROR_UNSUPPORTED_FUNCTION_CALL = ErrorMessage(4002, Severity.ERROR,
    '''Call to '{}': function calls are limited to builtin functions.''')
ERROR_UNSUPPORTED_VALUE_REFERENCE = ErrorMessage(4003, Severity.ERROR,
    '''Reference to '{}': references to values are limited to builtin types.''')
ERROR_UNSUPPORTED_CONSTRUCT = ErrorMessage(4004, Severity.ERROR,
    '''Construct of '{}': constructors are limited to builtin types.''')
ERROR_BAD_SAMPLE_RECEIVER = ErrorMessage(4005, Severity.ERROR,
    '''Texture samples must be performed on texture parameters.''')
ERROR_UNDEFINED_VARIABLE = ErrorMessage(4006, Severity.ERROR,
    '''Variable '{}' is used before it is assigned.''')
ERROR_VALUE_UNAVAILABLE_AT_STAGE = ErrorMessage(4007, Severity.ERROR,
    '''Value computed in the {} stage cannot be used in the {} stage.''')
ERROR_UNSUPPORTED_PARTIAL_ASSIGNMENT = ErrorMessage(4008, Severity.ERROR,
    '''Assignment to '{}' must assign the whole variable.''')
ERROR_UNSUPPORTED_METHOD_CALL = ErrorMessage(4009, Severity.ERROR,
    '''Call to method '{}': method calls are limited to builtin methods.''')
ERROR_UNSUPPORTED_INTERFACE_TYPE = ErrorMessage(4010, Severity.ERROR,
    '''Value '{}' of type {} cannot be passed between stages.''')

# Backends
ERROR_NO_COMPILER_RESULT = ErrorMessage(5001, Severity.ERROR,
    '''No result returned from the {} compiler for the {} stage.''')
ERROR_BACKEND_FAILED = ErrorMessage(5002, Severity.ERROR,
    '''Compiling the {} stage for {} failed:\n{}''')
WARNING_BACKEND_DIAGNOSTICS = ErrorMessage(5003, Severity.WARNING,
    '''Compiling the {} stage for {} produced diagnostics:\n{}''')
ERROR_NO_NATIVE_COMPILER = ErrorMessage(5004, Severity.ERROR,
    '''Target {} requires a native compiler, but none is configured.''')
ERROR_STAGES_FAILED = ErrorMessage(5005, Severity.ERROR,
    '''{} stage(s) failed to compile for {}.''')


class BackendException(CompileException):
    '''Stages of a program could not be compiled for a target. All
    collected messages are kept.'''
    def __init__(self, target, messages):
        super().__init__(ERROR_STAGES_FAILED, len(messages), target)
        self.messages = messages
