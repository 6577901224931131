from psl import Visitor


class PrettyPrintVisitor(Visitor.DefaultVisitor):
    def v_Module(self, module, ctx):
        for programType in module.GetTypes():
            self.v_Visit(programType, ctx)
        for decl in module.GetConstants():
            self._p(ctx, '{};'.format(decl))
        if module.GetConstants():
            self.Print()
        for pipeline in module.GetPipelines():
            self.v_Visit(pipeline, ctx)

    def GetContext(self):
        return 0

    def v_Pipeline(self, pipeline, ctx=None):
        self.Print('pipeline {0} ({1})'.format(
            pipeline.GetName(),
            ', '.join([str(p) for p in pipeline.GetParameters()])))
        self.v_Visit(pipeline.GetBody(), ctx)
        self.Print()

    def _p(self, ctx, s, **args):
        self.Print(' ' * (ctx * 4), end='')
        self.Print(s, **args)

    def v_BreakStatement(self, s, c):
        self._p(c, 'break;')

    def v_ContinueStatement(self, s, c):
        self._p(c, 'continue;')

    def v_EmptyStatement(self, s, c):
        self._p(c, ';')

    def v_StructureDefinition(self, decl, ctx):
        self._p(ctx, 'struct {0}'.format(decl.GetName()))
        self._p(ctx, '{')
        for field in decl.GetFields():
            self._p(ctx + 1, '{0} {1};'.format(field.GetType().GetName(),
                                               field.GetName()))
        self._p(ctx, '}')
        self.Print()

    def v_DeclarationStatement(self, decl, ctx):
        self._p(ctx, '{};'.format(decl.GetDeclaration()))

    def v_CompoundStatement(self, cs, ctx):
        self._p(ctx, '{')
        for s in cs.GetStatements():
            self.v_Visit(s, ctx + 1)
        self._p(ctx, '}')

    def v_ExpressionStatement(self, es, ctx):
        self._p(ctx, '', end='')
        self.Print(str(es.GetExpression()), end=';\n')

    def v_IfStatement(self, stmt, ctx):
        self._p(ctx, 'if ({0})'.format(str(stmt.GetCondition())))

        self.v_Visit(stmt.GetTruePath(), ctx)
        if stmt.HasElsePath():
            self._p(ctx, 'else')
            self.v_Visit(stmt.GetElsePath(), ctx)

    def v_ReturnStatement(self, stmt, ctx):
        self._p(ctx, '{};'.format(stmt))

    def v_ForStatement(self, stmt, ctx):
        self._p(ctx, 'for ({0}; {1}; {2})'.format(
            stmt.GetInitialization() or '', stmt.GetCondition() or '',
            stmt.GetNext() or ''))
        self.v_Visit(stmt.GetBody(), ctx)

    def v_WhileStatement(self, stmt, ctx):
        self._p(ctx, 'while ({0})'.format(stmt.GetCondition()))
        self.v_Visit(stmt.GetBody(), ctx)

    def v_DoStatement(self, stmt, ctx):
        self._p(ctx, 'do')
        self.v_Visit(stmt.GetBody(), ctx)
        self._p(ctx, 'while ({0});'.format(stmt.GetCondition()))


def GetPass():
    import psl.Pass
    return psl.Pass.MakePassFromVisitor(PrettyPrintVisitor(), 'pretty-print',
                                        flags=psl.Pass.PassFlags.IsDebug)
