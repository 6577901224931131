from typing import Optional
from psl import ast, Errors, Visitor


class Scope:
    '''Names declared in one block, chained to the enclosing block. The
    module scope holds the constants.'''
    def __init__(self, parent=None):
        self.__names = {}
        self.__parent = parent

    def Declare(self, name, location) -> None:
        existingLocation = self.Find(name)
        if existingLocation is not None:
            Errors.ERROR_VARIABLE_NAME_ALREADY_USED.Raise(
                name, existingLocation, location=location)
        self.__names[name] = location

    def Find(self, name) -> Optional[ast.Location]:
        scope = self
        while scope is not None:
            if name in scope.__names:
                return scope.__names[name]
            scope = scope.__parent
        return None


class ValidateVariableNamesVisitor(Visitor.DefaultVisitor):
    '''Validate that variable names are unique in their scope. Shadowing a
    constant, parameter or variable is rejected, as stage splitting moves
    declarations out of their blocks into one function per stage.'''
    def __init__(self):
        super().__init__()
        self.valid = True

    def __OnError(self):
        self.valid = False

    def __VisitInScope(self, node, scope):
        with Errors.CompileExceptionToErrorHandler(self.errorHandler,
                                                   self.__OnError):
            node.AcceptVisitor(self, scope)

    def GetContext(self):
        return Scope()

    def v_StructureDefinition(self, sd, ctx=None):
        # Field names live in their own namespace
        self.__VisitInScope(sd, Scope())

    def v_Pipeline(self, pipeline, ctx=None):
        scope = Scope(ctx)
        with Errors.CompileExceptionToErrorHandler(self.errorHandler,
                                                   self.__OnError):
            for parameter in pipeline.GetParameters():
                scope.Declare(parameter.GetName(), parameter.GetLocation())
        self.__VisitInScope(pipeline.GetBody(), scope)

    def v_CompoundStatement(self, stmt, ctx=None):
        self.__VisitInScope(stmt, Scope(ctx))

    def v_FlowStatement(self, stmt, ctx=None):
        self.__VisitInScope(stmt, Scope(ctx))

    def v_VariableDeclaration(self, decl, ctx):
        ctx.Declare(decl.GetName(), decl.GetLocation())

    def v_Expression(self, expr, ctx):
        pass


def GetPass():
    from psl import Pass

    def IsValid(visitor):
        return visitor.valid

    return Pass.MakePassFromVisitor(ValidateVariableNamesVisitor(),
                                    'validate-variable-names',
                                    validator=IsValid)
