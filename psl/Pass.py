from io import StringIO
import enum
from typing import Callable, Optional
from .Visitor import Visitor


class PassFlags(enum.IntFlag):
    Default = 0
    # Only run when debug output of the passes was requested
    IsDebug = 0b1


class Pass:
    '''A transformation or check over a parsed module.

    ``Process`` returns ``False`` if the module must not be processed any
    further. Diagnostics go to ``errorHandler`` if one is given.'''
    @property
    def Name(self):
        return self.__class__.__name__

    @property
    def Flags(self) -> PassFlags:
        return PassFlags.Default

    def Process(self, root, output=None, errorHandler=None) -> bool:
        return False


def MakePassFromVisitor(
    visitor, name, validator: Optional[Callable[[Visitor], bool]] = None, *,
    flags=PassFlags.Default
):
    '''Wrap ``visitor`` into a ``Pass``. Without a ``validator``, the pass
    fails if the visitor logged an error.'''
    class VisitorPass(Pass):
        def __init__(self):
            self.__visitor = visitor

        @property
        def Name(self):
            return name

        @property
        def Flags(self):
            return flags

        @property
        def Visitor(self):
            return self.__visitor

        def Process(self, root, output=None, errorHandler=None):
            from psl import Errors

            if errorHandler is None:
                errorHandler = Errors.ErrorHandler()
            errorCount = errorHandler.errors

            self.__visitor.SetErrorHandler(errorHandler)
            self.__visitor.SetOutput(output or StringIO())
            self.__visitor.Visit(root)

            if validator is not None:
                return validator(self.__visitor)
            return errorHandler.errors == errorCount

    return VisitorPass()


def RunPasses(root, passes, *, debug=False, errorHandler=None,
              kind='AST') -> bool:
    '''Run ``passes`` over ``root`` in order, stopping at the first failing
    one. Debug passes only run if ``debug`` is set, and then each pass
    writes its output to ``<kind>-pass-<index>-<name>.txt``.'''
    for index, p in enumerate(passes):
        if not debug and p.Flags & PassFlags.IsDebug:
            continue

        buffer = StringIO()
        if not p.Process(root, output=buffer, errorHandler=errorHandler):
            print(f"Error in {kind} pass {p.Name}")
            return False

        if debug and buffer.getvalue():
            outputFilename = f"{kind.lower()}-pass-{index}-{p.Name}.txt"
            with open(outputFilename, "w", encoding="utf-8") as outputFile:
                outputFile.write(buffer.getvalue())

    return True
