from game.Core import Core, GameEvent


class Interface:

    def __init__(self):
        self.core: Core = None

    def onStart(self):
        pass

    def onEvent(self, event: GameEvent):
        """
        Invoked when a game event is performed.
        :param event:
        :return:
        """
        self.notifyRedraw()

    def onUndoEvent(self, event: GameEvent):
        """
        Invoked when a game event is undone.
        :param event:
        :return:
        """
        self.notifyRedraw()

    def notifyRedraw(self):
        pass

    def onWin(self):
        pass

    def onLoss(self):
        pass

    def onSolveProgress(self, nodes: int):
        """
        Invoked every few hundred solver expansions while askSolve runs.
        :param nodes: expansions so far
        """
        pass
