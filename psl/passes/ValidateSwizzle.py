from psl import Errors, Visitor

_SELECTORS = {'x': 0, 'y': 1, 'z': 2, 'w': 3,
              'r': 0, 'g': 1, 'b': 2, 'a': 3}


def _ContainsAnyOf(mask, selectors):
    return any([m in selectors for m in mask])


def ValidateSwizzleMask(mask, location=None):
    if not mask or any([m not in _SELECTORS for m in mask]):
        Errors.ERROR_INVALID_SWIZZLE_MASK.Raise(mask, location=location)

    if _ContainsAnyOf(mask, 'xyzw') and _ContainsAnyOf(mask, 'rgba'):
        Errors.ERROR_MIXED_SWIZZLE_MASK.Raise(mask, location=location)


class ValidateSwizzleMaskVisitor(Visitor.DefaultVisitor):
    """Validate swizzle masks on vector types."""

    def __init__(self):
        super().__init__()
        self.valid = True

        def OnError():
            self.valid = False
        self.__onError = OnError

    def v_MemberAccessExpression(self, expr, ctx=None):
        expr.AcceptVisitor(self, ctx)
        if not expr.isSwizzle:
            return

        t = expr.GetParent().GetType()
        mask = expr.GetMember()
        location = expr.GetLocation()

        with Errors.CompileExceptionToErrorHandler(self.errorHandler,
                                                   self.__onError):
            ValidateSwizzleMask(mask, location)

            componentCount = t.GetComponentCount() if t.IsVector() else 1
            if any([_SELECTORS[m] >= componentCount for m in mask]):
                Errors.ERROR_SWIZZLE_OUT_OF_RANGE.Raise(mask, t,
                                                        location=location)
            if len(mask) > 4:
                Errors.ERROR_INVALID_SWIZZLE_MASK.Raise(mask,
                                                        location=location)


def GetPass():
    from psl import Pass

    def IsValid(visitor):
        return visitor.valid

    return Pass.MakePassFromVisitor(
        ValidateSwizzleMaskVisitor(), "validate-swizzle-mask", validator=IsValid
    )
