import collections.abc
import inspect


class InvalidNodeType(Exception):
    def __init__(self, actualType):
        self.actualType = actualType


class Node:
    '''Base class for everything a ``Visitor`` can walk.

    Derived classes list their children through ``_Traverse``, which is
    called with a function accepting a node, a sequence of nodes or
    ``None``.'''
    def _Traverse(self, function):
        pass

    def ForEachChild(self, f, ctx=None):
        def Wrapper(e):
            if e is None:
                return
            if isinstance(e, collections.abc.Sequence):
                for element in e:
                    Wrapper(element)
            elif isinstance(e, collections.abc.Mapping):
                for element in e.values():
                    Wrapper(element)
            else:
                if not isinstance(e, Node):
                    raise InvalidNodeType(type(e))
                f(e, ctx)

        self._Traverse(Wrapper)

    def GetChildren(self):
        children = []
        self.ForEachChild(lambda c, ctx: children.append(c))
        return children

    def AcceptVisitor(self, visitor, ctx=None):
        '''Visit all children of this node.'''
        def Visit(c, ctx):
            visitor.v_Generic(c, ctx)
        self.ForEachChild(Visit, ctx)


class Visitor:
    def __init__(self):
        from psl.Errors import NullErrorHandler
        self.errorHandler = NullErrorHandler()
        self.output = None
        self.__dispatch = {}

    def SetErrorHandler(self, errorHandler):
        self.errorHandler = errorHandler

    def SetOutput(self, output):
        self.output = output

    def Print(self, *args, end='\n'):
        print(*args, end=end, file=self.output)

    def __FindHandler(self, cls):
        # Resolved once per class, walking the MRO so a handler for a base
        # class (v_Expression) catches all derived nodes without their own.
        handler = self.__dispatch.get(cls)
        if handler is None:
            handler = self.v_Default
            for baseClass in inspect.getmro(cls):
                if baseClass is object:
                    break
                fname = 'v_{}'.format(baseClass.__name__)
                if hasattr(self, fname):
                    handler = getattr(self, fname)
                    break
            self.__dispatch[cls] = handler
        return handler

    def v_Generic(self, obj, ctx=None):
        '''Dispatch ``obj`` to the most specific ``v_ClassName`` method.'''
        return self.__FindHandler(obj.__class__)(obj, ctx)

    def v_Default(self, obj, ctx):
        from psl import Errors
        Errors.ERROR_INTERNAL_COMPILER_ERROR.Raise(
            'missing visit method "{}.v_{}"'.format(
                self.__class__.__name__, obj.__class__.__name__))

    def GetContext(self):
        return None

    def v_Visit(self, obj, ctx=None):
        return self.v_Generic(obj, ctx)

    def Visit(self, root):
        return self.v_Generic(root, self.GetContext())


class DefaultVisitor(Visitor):
    def v_Default(self, obj, ctx=None):
        '''Traverse further if possible.'''
        if hasattr(obj, 'AcceptVisitor'):
            return obj.AcceptVisitor(self, ctx)
